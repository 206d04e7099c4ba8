import logging

import pytest
from graphql import GraphQLSchema

from modelql import ModelSchema, field, hook
from modelql.compiler import DISABLED
from modelql.connectors import MemoryConnector
from modelql.core.errors import SchemaError
from modelql.core.fields import Model, create_model, resolve_as
from tests.models import ADMIN_USER, CURRENT_USER, make_comment, make_post, make_user


@pytest.fixture
def blog():
    schema = ModelSchema()
    User, Comment, Post = make_user(), make_comment(), make_post()
    users = MemoryConnector(User, documents=[
        {'_id': '42', 'name': 'Me', 'email': 'me@example.com', 'userId': '42'},
        {'_id': '7', 'name': 'Other', 'email': 'other@example.com', 'userId': '7'},
    ])
    comments = MemoryConnector(Comment, documents=[{'_id': 'c1', 'text': 'Nice'}, {'_id': 'c2', 'text': 'Meh', 'hidden': True}])
    posts = MemoryConnector(Post, documents=[
        {'_id': 'p1', 'title': 'Alpha', 'body': 'one two three', 'userId': '7', 'commentIds': ['c2', 'c1'], 'score': 1.0},
        {'_id': 'p2', 'title': 'Beta', 'body': 'four', 'userId': '42', 'address': {'city': 'Paris'}, 'score': 3.0},
        {'_id': 'p3', 'title': 'Gamma', 'userId': '7', 'secret': 'hush', 'score': 2.0},
    ])
    schema.register(User, connector=users)
    schema.register(Comment, connector=comments)
    schema.register(Post, connector=posts)
    return schema


async def run(schema, query, user=CURRENT_USER, **variables):
    result = await schema.execute(query, variable_values=variables or None, context_value={'current_user': user})
    return result


def test_register_keeps_connector_model(blog):
    assert blog.get_connector('Post').model is blog.get_model('Post')
    assert [m.name for m in blog.models] == ['User', 'Comment', 'Post']
    assert blog.get_connector('Missing') is None


def test_get_unknown_model(blog):
    with pytest.raises(SchemaError):
        blog.get_model('Missing')


def test_sdl_is_cached_and_deterministic(blog):
    assert blog.to_sdl() == blog.to_sdl()
    assert blog.compile(blog.get_model('Post')) is blog.compile(blog.get_model('Post'))
    assert isinstance(blog.to_graphql_schema(), GraphQLSchema)
    assert blog.to_graphql_schema() is blog.to_graphql_schema()


def test_conflicting_registration(blog):
    with pytest.raises(SchemaError):
        blog.register(make_post(), connector=MemoryConnector(blog.get_model('Post')))


def test_connector_bound_to_another_model():
    schema = ModelSchema()
    Post = make_post()
    with pytest.raises(SchemaError):
        schema.register(Post, connector=MemoryConnector(make_user()))
    assert schema.models == ()


def test_empty_registry_has_no_queries():
    with pytest.raises(SchemaError):
        ModelSchema().to_sdl()


def test_registration_without_connector_needs_resolvers():
    schema = ModelSchema()
    schema.register(make_user())
    with pytest.raises(SchemaError):
        schema.to_sdl()


@pytest.mark.asyncio
async def test_multi_query_with_filter_sort_and_total(blog):
    result = await run(blog, '''
        {
          posts(input: { filter: { score: { _gte: 2 } }, sort: { score: desc }, enableTotal: true }) {
            totalCount
            results { _id title secret wordCount }
          }
        }
    ''')
    assert result.errors is None
    assert result.data['posts'] == {
        'totalCount': 2,
        'results': [
            {'_id': 'p2', 'title': 'Beta', 'secret': None, 'wordCount': 1},
            {'_id': 'p3', 'title': 'Gamma', 'secret': None, 'wordCount': 0},
        ],
    }


@pytest.mark.asyncio
async def test_multi_query_limit_and_total_opt_out(blog):
    result = await run(blog, '{ posts(input: { sort: { title: asc }, limit: 1, offset: 1, enableTotal: false }) { totalCount results { title } } }')
    assert result.errors is None
    assert result.data['posts'] == {'totalCount': None, 'results': [{'title': 'Beta'}]}


@pytest.mark.asyncio
async def test_admin_reads_secret(blog):
    result = await run(blog, '{ post(input: { id: "p3" }) { result { secret } } }', user=ADMIN_USER)
    assert result.data == {'post': {'result': {'secret': 'hush'}}}


@pytest.mark.asyncio
async def test_relations_resolve_through_connectors(blog):
    result = await run(blog, '''
        {
          post(input: { id: "p1" }) {
            result { userId user { name email } comments { _id text hidden } }
          }
        }
    ''')
    assert result.errors is None
    assert result.data['post']['result'] == {
        'userId': '7',
        'user': {'name': 'Other', 'email': None},
        'comments': [{'_id': 'c2', 'text': 'Meh', 'hidden': None}, {'_id': 'c1', 'text': 'Nice', 'hidden': None}],
    }


@pytest.mark.asyncio
async def test_single_query_by_nested_filter(blog):
    result = await run(blog, '{ post(input: { filter: { address: { city: { _eq: "Paris" } } } }) { result { _id address { city } } } }')
    assert result.data == {'post': {'result': {'_id': 'p2', 'address': {'city': 'Paris'}}}}


@pytest.mark.asyncio
async def test_single_query_missing_document(blog):
    result = await run(blog, '{ post(input: { id: "nope" }) { result { _id } } }')
    assert result.data == {'post': None}
    assert result.errors[0].original_error.id == 'app.missing_document'

    result = await run(blog, '{ post(input: { id: "nope", allowNull: true }) { result { _id } } }')
    assert result.errors is None
    assert result.data == {'post': {'result': None}}


@pytest.mark.asyncio
async def test_create_update_delete_mutations(blog):
    created = await run(blog, '''
        mutation ($data: CreatePostDataInput) {
          createPost(data: $data) { data { _id title userId createdAt address { city } } }
        }
    ''', data={'title': 'Delta', 'address': {'city': 'Lyon'}})
    assert created.errors is None
    post = created.data['createPost']['data']
    assert post['title'] == 'Delta'
    assert post['userId'] == '42'
    assert post['createdAt'] is not None
    assert post['address'] == {'city': 'Lyon'}

    updated = await run(blog, '''
        mutation ($id: String) {
          updatePost(input: { id: $id, data: { title: "Delta 2" } }) { data { title } }
        }
    ''', id=post['_id'])
    assert updated.errors is None
    assert updated.data == {'updatePost': {'data': {'title': 'Delta 2'}}}

    deleted = await run(blog, 'mutation ($id: String) { deletePost(input: { id: $id }) { data { _id } } }', id=post['_id'])
    assert deleted.errors is None
    assert deleted.data == {'deletePost': {'data': {'_id': post['_id']}}}
    assert await blog.get_connector('Post').find_one_by_id(post['_id']) is None


@pytest.mark.asyncio
async def test_create_input_wrapper_and_validation_error(blog):
    ok = await run(blog, 'mutation { createPost(input: { data: { title: "Wrapped" } }) { data { title } } }')
    assert ok.data == {'createPost': {'data': {'title': 'Wrapped'}}}

    bad = await run(blog, 'mutation { createPost(data: { title: "Sneaky", secret: "x" }) { data { title } } }')
    assert bad.data == {'createPost': None}
    error = bad.errors[0].original_error
    assert error.id == 'app.validation_error'
    assert error.data['errors'][0]['path'] == 'secret'


@pytest.mark.asyncio
async def test_update_other_users_post_is_rejected(blog):
    result = await run(blog, 'mutation { updatePost(input: { id: "p1", data: { score: 9 } }) { data { score } } }')
    assert result.errors[0].original_error.id == 'app.validation_error'
    result = await run(blog, 'mutation { updatePost(input: { id: "p1", data: { score: 9 } }) { data { score } } }', user=ADMIN_USER)
    assert result.errors is None
    assert result.data == {'updatePost': {'data': {'score': 9.0}}}


@pytest.mark.asyncio
async def test_delete_by_selector_and_permission(blog):
    denied = await run(blog, 'mutation { deletePost(selector: { _id: "p1" }) { data { _id } } }')
    assert denied.errors[0].original_error.id == 'app.operation_not_allowed'
    allowed = await run(blog, 'mutation { deletePost(selector: { documentId: "p2" }) { data { _id title } } }')
    assert allowed.errors is None
    assert allowed.data == {'deletePost': {'data': {'_id': 'p2', 'title': 'Beta'}}}


@pytest.mark.asyncio
async def test_upsert_updates_or_creates(blog):
    updated = await run(blog, 'mutation { upsertPost(input: { id: "p2", data: { title: "Beta 2" } }) { data { _id title } } }')
    assert updated.errors is None
    assert updated.data == {'upsertPost': {'data': {'_id': 'p2', 'title': 'Beta 2'}}}

    created = await run(blog, 'mutation { upsertPost(input: { id: "p9", data: { title: "Fresh" } }) { data { _id title } } }')
    assert created.errors is None
    assert created.data['upsertPost']['data']['title'] == 'Fresh'
    assert await blog.get_connector('Post').count({}) == 4


@pytest.mark.asyncio
async def test_upsert_by_selector_warns_once(blog):
    with pytest.warns(DeprecationWarning) as record:
        result = await run(blog, 'mutation { upsertPost(selector: { documentId: "p2" }, data: { title: "Beta 3" }) { data { title } } }')
    assert result.errors is None
    assert result.data == {'upsertPost': {'data': {'title': 'Beta 3'}}}
    assert len([w for w in record if "'selector'" in str(w.message)]) == 1


@pytest.mark.asyncio
async def test_model_decorator_with_hooks():
    schema = ModelSchema()

    @schema.model(connector=MemoryConnector, permissions={'can_create': ['members']})
    class Note:
        """A short note."""

        _id = field(str, can_read=True, optional=True)
        text = field(str, can_read=True, can_create=['members'])

        @hook('create', 'validate')
        def not_shouting(errors, properties):
            if properties['document']['text'].isupper():
                errors.append({'id': 'note.shouting', 'path': 'text'})
            return errors

        @staticmethod
        @hook('create', 'after')
        def trim(document, properties):
            return {**document, 'text': document['text'].strip()}

    assert isinstance(Note, Model)
    assert Note.graphql.description == 'A short note.'
    assert 'Note.create.validate' in Note.callbacks
    assert 'Note.create.after' in Note.callbacks

    loud = await run(schema, 'mutation { createNote(data: { text: "HEY" }) { data { text } } }')
    assert loud.errors[0].original_error.data['errors'] == [{'id': 'note.shouting', 'path': 'text'}]

    quiet = await run(schema, 'mutation { createNote(data: { text: " hi " }) { data { text } } }')
    assert quiet.data == {'createNote': {'data': {'text': 'hi'}}}

    sdl = schema.to_sdl()
    assert '"A short note."\ntype Note {' in sdl
    assert 'updateNote' not in sdl


@pytest.mark.asyncio
async def test_disabled_mutations_and_custom_field_resolver():
    schema = ModelSchema()
    Tag = create_model('Tag', {
        'name': field(str, can_read=True),
        'loud': field(str, can_read=True, resolve_as=resolve_as('String', resolver=lambda root, info: root['name'].upper())),
    })
    schema.register(Tag, connector=MemoryConnector(Tag, documents=[{'_id': 't1', 'name': 'py'}]), mutations=DISABLED)
    result = await run(schema, '{ tags { results { name loud } } }')
    assert result.errors is None
    assert result.data == {'tags': {'results': [{'name': 'py', 'loud': 'PY'}]}}
    assert schema.to_graphql_schema().mutation_type is None


def test_computed_field_without_resolver_warns(caplog):
    caplog.set_level(logging.WARNING, logger='modelql')
    schema = ModelSchema()
    Thing = create_model('Thing', {
        'name': field(str, can_read=True),
        'extra': field(str, can_read=True, resolve_as=resolve_as('String')),
    })
    schema.register(Thing, connector=MemoryConnector(Thing), mutations=DISABLED)
    schema.to_graphql_schema()
    assert any('Thing.extra has no resolver' in r.getMessage() for r in caplog.records)


def test_relation_to_model_without_connector():
    async def noop(root, info, **kwargs):
        return None

    schema = ModelSchema()
    schema.register(make_user(), resolvers={'single': noop, 'multi': noop}, mutations=DISABLED)
    Comment, Post = make_comment(), make_post()
    schema.register(Comment, connector=MemoryConnector(Comment))
    schema.register(Post, connector=MemoryConnector(Post))
    with pytest.raises(SchemaError):
        schema.to_graphql_schema()
