"""Virtual folder hierarchy over flat file records: paths, listings, mutations, selection."""
