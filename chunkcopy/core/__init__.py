"""
ChunkCopy Core - migration engine shared by the API and the CLI.
"""
