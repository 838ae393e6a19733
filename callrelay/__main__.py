"""
callrelay 的入口点，支持 python -m callrelay。
"""

from callrelay.cli.commands import app

if __name__ == "__main__":
    app()
