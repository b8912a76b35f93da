"""Services around the detection core: rule sources and reporting sinks."""
