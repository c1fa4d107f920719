"""wordloop: hybrid learning/review scheduler for vocabulary study."""

VERSION = "0.3.0"
