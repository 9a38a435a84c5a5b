"""Browser process, DevTools endpoint and controller plumbing."""
