# Service layer package
