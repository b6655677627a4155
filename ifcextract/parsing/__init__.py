"""Lexing and parsing of STEP exchange files into an entity store."""
