"""On-disk cache storage with reads, writes, invalidation and eviction."""