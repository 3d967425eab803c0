"""Services package: record storage and exchange rates."""
