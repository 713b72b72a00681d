"""Discord adapters: REST command registry and the interaction gateway."""
