"""Writing rendered configuration to lab devices through a caller-supplied transport."""