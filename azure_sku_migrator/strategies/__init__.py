"""Migration strategies, one per migration type"""
