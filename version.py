"""Release version of the BasicCustomHUD plugin."""

__version__ = "2.0.0"
