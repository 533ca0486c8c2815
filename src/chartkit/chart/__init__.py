"""chartkit.chart — Chart tree, loader, writer and values engine."""
