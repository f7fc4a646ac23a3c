"""
frameworkbench setup.py

frameworkbenchパッケージのインストール設定
"""

from setuptools import setup, find_packages

# READMEファイルを読み込み


def read_readme():
    with open('README.md', 'r', encoding='utf-8') as f:
        return f.read()

# requirements.txtを読み込み


def read_requirements():
    with open('requirements.txt', 'r', encoding='utf-8') as f:
        return [line.strip() for line in f.readlines()
                if line.strip() and not line.startswith('#')]


setup(
    name='frameworkbench',
    version='0.1.0',
    author='Pochi Team',
    author_email='pochi@example.com',
    description='Benchmark harness for Express, Fastify and Hono on Node.js and Bun',
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    url='https://github.com/pochi-team/frameworkbench',
    packages=find_packages(include=['frameworkbench', 'frameworkbench.*']),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development :: Testing',
        'Topic :: System :: Benchmark',
    ],
    keywords='benchmark, http, wrk, autocannon, node, bun, express, fastify, hono',
    python_requires='>=3.9',
    install_requires=read_requirements(),
    extras_require={
        'dev': [
            'pytest>=6.0.0,<9.1',
            'flake8>=3.8.0',
            'black>=21.0.0',
            'isort>=5.8.0',
            'pydocstyle>=6.0.0',
            'pre-commit>=2.12.0'
        ]
    },
    entry_points={
        'console_scripts': [
            'frameworkbench=frameworkbench.cli.bench:main',
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
