"""Domain modules. Each one brings its own models, rules and blueprint."""
