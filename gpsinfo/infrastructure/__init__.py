"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (mapping APIs, configuration
files, the console) by implementing the interfaces defined in the domain layer.
"""
