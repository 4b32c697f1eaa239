"""PalletTrack — warehouse pallet intake, discount tasks and movement log."""

__version__ = "0.1.0"
