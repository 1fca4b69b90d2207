"""A small MapReduce framework: coordinator, worker and RPC types."""