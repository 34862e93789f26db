"""Card core: definitions, input resolution, identity, rendering and action dispatch."""
