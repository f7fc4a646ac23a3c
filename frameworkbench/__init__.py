"""
frameworkbench: Web フレームワーク × JS ランタイムのベンチマークハーネス

Express / Fastify / Hono を Node.js と Bun で起動し, wrk または autocannon で
負荷をかけた結果を集計してレポートにまとめる.

Example:
    >>> from frameworkbench.config import build_setups, default_matrix
    >>> setups = build_setups(default_matrix(), runtimes=["bun"])
    >>> [s.name for s in setups]
    ['Express on Bun', 'Fastify on Bun', 'Hono on Bun']
"""

__version__ = '0.1.0'
__author__ = 'Pochi Team'
