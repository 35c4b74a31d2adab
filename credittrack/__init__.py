"""CreditTrack: credit-record tracking backend."""
