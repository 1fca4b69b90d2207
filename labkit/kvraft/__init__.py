"""Client side of a replicated key/value service: the Clerk and its messages."""