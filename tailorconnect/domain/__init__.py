"""Domain packages: one per aggregate, each with schemas, repository, service and router"""
