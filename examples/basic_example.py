"""
Basic example of using modelql with graphql-core and SQLAlchemy.

This example demonstrates:
- Declaring models with per-field capabilities
- Storing them in SQLite through the SQLAlchemy connector
- Running the generated queries and mutations
- Resolving a hasOne relation with read-side field filtering
"""

import asyncio
import json

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from modelql import ModelSchema, SQLAlchemyConnector, field, resolve_as, table_for_model

schema = ModelSchema()
metadata = MetaData()


@schema.model(permissions={'can_create': ['members'], 'can_update': ['owners', 'admins'], 'can_delete': ['admins']})
class User:
    """A registered user."""

    _id = field(str, can_read=True, can_create=['members'], optional=True)
    name = field(str, can_read=True, can_create=['members'], can_update=['owners'])
    email = field(str, can_read=['owners', 'admins'], can_create=['members'], unique=True)
    userId = field(str, can_read=['admins'], optional=True)


@schema.model(permissions={'can_create': ['members'], 'can_update': ['owners'], 'can_delete': ['owners', 'admins']})
class Post:
    """A blog post."""

    _id = field(str, can_read=True, optional=True)
    title = field(str, can_read=True, can_create=['members'], can_update=['owners'], max=200)
    body = field(str, can_read=True, can_create=['members'], can_update=['owners'], optional=True)
    userId = field(
        str,
        can_read=True,
        optional=True,
        resolve_as=resolve_as('User', relation='hasOne', model='User', field_name='author', add_original_field=True),
    )


async def setup(session_factory):
    for model in (User, Post):
        table = table_for_model(model, metadata)
        schema.register(model, connector=SQLAlchemyConnector(table, session_factory, model))


async def main():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await setup(session_factory)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    alice = {'_id': 'alice'}
    context = {'current_user': alice}

    print(schema.to_sdl())

    created = await schema.execute(
        'mutation { createUser(data: { _id: "alice", name: "Alice", email: "alice@example.com" }) { data { _id name email } } }',
        context_value=context,
    )
    print(json.dumps(created.data, indent=2))

    await schema.execute(
        'mutation ($data: CreatePostDataInput) { createPost(data: $data) { data { _id title } } }',
        variable_values={'data': {'title': 'Hello modelql', 'body': 'First post'}},
        context_value=context,
    )

    result = await schema.execute(
        '{ posts(input: { sort: { title: asc }, enableTotal: true }) { totalCount results { title author { name email } } } }',
        context_value={'current_user': {'_id': 'bob'}},
    )
    # bob cannot read alice's email
    print(json.dumps(result.data, indent=2))
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
