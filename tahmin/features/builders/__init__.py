"""Feature builders: form, head-to-head, standings and motivation."""
