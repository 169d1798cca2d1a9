"""pgcacher - inspect how much of each file sits in the Linux page cache."""

__version__ = "0.1.0"
