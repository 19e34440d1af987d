# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   user_service     - registration, login, own-account read/update
#   profile_service  - public profiles + follow/unfollow
#   article_service  - CRUD, listing/feed, favorites, tags
#   comment_service  - list/add/delete comments on an article
#
# Two shared building blocks carry the access-control rules:
#
#   ownership        - OwnershipMutator: row-locked, owner-checked update/delete
#   relationships    - RelationshipToggle: idempotent follow/favorite edges
#
# All service functions accept an AsyncSession as their first argument.
# Mutations open their own scoped transaction (conduit.database.transaction)
# so a failed ownership or constraint check never commits partial work.
