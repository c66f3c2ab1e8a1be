"""Forward dump1090 SBS1 surveillance messages to DataSet in batches."""

__version__ = "0.1.0"
