"""
Service layer

Pure computation, no state transitions:
- role_catalog: recognised band roles
- roster_codec: storage tokens for filled role slots
- eligibility_service: roles a user may still claim
- schedule_service: creation-time schedule conflicts
- auth_service: password hashing and access tokens
"""
