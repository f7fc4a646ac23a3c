"""frameworkbench.cli: コマンドラインエントリポイント."""
