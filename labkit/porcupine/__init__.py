"""Linearizability checking for recorded histories: models, bit sets and the checker."""