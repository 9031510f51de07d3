"""
Accounts: username-or-email login against the `users` collection and
password help requests. Profiles themselves are managed outside this app.
"""
