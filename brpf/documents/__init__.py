"""Generation of the Word documents issued by the bureau."""
