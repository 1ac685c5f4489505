"""Format implementations. Each module provides decoder and/or encoder classes;
``tableconvert.registry.build_default_registry`` wires them up by id."""
