"""Pure domain layer: workflow table, authorization rules, value objects."""
