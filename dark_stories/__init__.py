"""Dark Stories game core: models, story store, upstream chat client, game protocol."""
