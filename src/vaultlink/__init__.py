"""vaultlink: link suggestion and safe link insertion for markdown vaults."""

__version__ = "0.1.0"
