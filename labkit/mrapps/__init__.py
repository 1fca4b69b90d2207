"""Sample MapReduce applications: wc, indexer, crash, nocrash, early_exit and jobcount."""