"""MySportsFeeds client and box score derivations."""
