"""
flashgen - quote and execute flash-token purchases on BNB Smart Chain.
"""

__version__ = "0.1.0"
