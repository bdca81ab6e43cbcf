"""Persistence layer for the BlaBlaCar trip watch bot (YDB backed)"""

__version__ = "0.3.0"
