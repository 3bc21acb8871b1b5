"""Format decoders for pack members: XML tags, .trl trails, PNG images."""
