"""Configuration server: REST API, persistence and invalidation tracking for delivery services and cache nodes."""