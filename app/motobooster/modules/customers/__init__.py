"""
Customers module.

Scope:
- Customer list with search, vehicle-type filter, archived toggle and sortable columns
- Create / edit customer records (business id CUS-NNN allocated on create)
- Archive / unarchive / hard delete, one at a time or in bulk from select mode
"""
