# External agent collaborators and the dispatch gateway
