"""Tests for the query builder and predicate rendering."""

from __future__ import annotations

from datetime import date

import pytest

from recordkit import (
    BuildError,
    Context,
    Mapped,
    Model,
    QueryBuilder,
    SchemaRegistry,
    mapped_column,
    many_to_many,
)
from recordkit.conditions import AND, OR, Group, ParamList, Where, make_where, render_where


class Author(Model):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str]
    bio: Mapped[str | None]
    birth_date: Mapped[date | None]
    active: Mapped[bool]
    books = many_to_many("Book", back_populates="authors")


class Book(Model):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str]
    authors = many_to_many(Author, back_populates="books")


@pytest.fixture
def ctx(context: Context) -> Context:
    context.register(Author, Book)
    context.register_association(Author, Book)
    return context


class PostgresExecutor:
    """Executor stand-in that only provides a dialect."""

    dialect = "postgresql"

    def execute(self, sql, params=()):
        raise AssertionError("not expected to execute")


class TestPredicates:
    """Test leaf normalization and tree rendering."""

    def test_true_sentinel_means_equality(self) -> None:
        assert make_where("name", True, "Amy") == Where("name", "=", "Amy")

    def test_operator_normalized(self) -> None:
        assert make_where("name", "not  like", "A%").operator == "NOT LIKE"
        assert make_where("id", "<>", 3).operator == "!="

    def test_list_values_become_in(self) -> None:
        assert make_where("id", True, [1, 2]) == Where("id", "IN", (1, 2))
        assert make_where("id", "!=", {3}) == Where("id", "NOT IN", (3,))

    def test_list_with_like_rejected(self) -> None:
        with pytest.raises(BuildError):
            make_where("name", "LIKE", ["a", "b"])

    def test_unknown_operator_rejected(self) -> None:
        with pytest.raises(BuildError):
            make_where("name", "~", "a")

    def test_empty_column_rejected(self) -> None:
        with pytest.raises(BuildError):
            make_where("  ", True, 1)

    def test_group_renders_parenthesized(self) -> None:
        tree = Group(Where("a", "=", 1), OR, Group(Where("b", "=", 2), AND, Where("c", ">", 3)))
        params = ParamList()
        assert render_where(tree, params, str) == "(a = ? OR (b = ? AND c > ?))"
        assert params.values == [1, 2, 3]

    def test_single_leaf_wrapped(self) -> None:
        assert render_where(Where("a", "=", 1), ParamList(), str) == "(a = ?)"

    def test_empty_lists(self) -> None:
        assert render_where(Where("a", "IN", ()), ParamList(), str) == "(1 = 0)"
        assert render_where(Where("a", "NOT IN", ()), ParamList(), str) == "(1 = 1)"

    def test_null_comparisons(self) -> None:
        params = ParamList()
        assert Where("a", "=", None).render(params, str) == "a IS NULL"
        assert Where("a", "!=", None).render(params, str) == "a IS NOT NULL"
        assert params.values == []

    def test_postgres_placeholders(self) -> None:
        params = ParamList("postgresql")
        assert params.add_all([1, 2, 3]) == "$1, $2, $3"


class TestQuerySQL:
    """Test SQL generation."""

    def test_simple_where(self, ctx) -> None:
        sql, params = Author.query(ctx).where("name", "LIKE", "John%").to_sql()
        assert sql == "SELECT authors.* FROM authors WHERE (authors.name LIKE ?)"
        assert params == ["John%"]

    def test_where_calls_combine_with_and(self, ctx) -> None:
        sql, params = Author.query(ctx).where("name", True, "A").where("active", True, 1).to_sql()
        assert sql.endswith("WHERE (authors.name = ? AND authors.active = ?)")
        assert params == ["A", 1]

    def test_or_where(self, ctx) -> None:
        sql, _ = Author.query(ctx).where("name", True, "A").or_where("name", True, "B").to_sql()
        assert sql.endswith("WHERE (authors.name = ? OR authors.name = ?)")

    def test_nested_group(self, ctx) -> None:
        query = (
            Author.query(ctx)
            .where("name", "LIKE", "John%", lambda q: q.or_where("bio", True, "Hi"))
            .and_where("active", True, 1)
        )
        sql, params = query.to_sql()
        assert sql.endswith("WHERE ((authors.name LIKE ? OR authors.bio = ?) AND authors.active = ?)")
        assert params == ["John%", "Hi", 1]

    def test_no_constraints(self, ctx) -> None:
        sql, params = Author.query(ctx).to_sql()
        assert sql == "SELECT authors.* FROM authors"
        assert params == []

    def test_order_limit_offset(self, ctx) -> None:
        sql, _ = Author.query(ctx).order_by("birth_date", "desc").order_by("id").take(1).offset(2).to_sql()
        assert sql == (
            "SELECT authors.* FROM authors ORDER BY authors.birth_date DESC, authors.id ASC LIMIT 1 OFFSET 2"
        )

    def test_offset_without_limit_on_sqlite(self, ctx) -> None:
        sql, _ = Author.query(ctx).offset(5).to_sql()
        assert sql.endswith("LIMIT -1 OFFSET 5")

    def test_distinct_select(self, ctx) -> None:
        sql, _ = Author.query(ctx).select("id", "name").distinct().to_sql()
        assert sql == "SELECT DISTINCT authors.id, authors.name FROM authors"

    def test_join_with_nested_constraint(self, ctx) -> None:
        link = ctx.schema.get_table("authors-books")
        query = Book.query(ctx).join(link, "id", "book_id", "=", lambda q: q.where("author_id", True, 1))
        sql, params = query.to_sql()
        assert sql == (
            "SELECT books.* FROM books INNER JOIN authors_to_books "
            "ON (books.id = authors_to_books.book_id AND (authors_to_books.author_id = ?))"
        )
        assert params == [1]

    def test_left_join_select_all_columns(self, ctx) -> None:
        query = Book.query(ctx).select_all(False).join("authors-books", "id", "book_id", kind="left")
        sql, _ = query.to_sql()
        assert sql == "SELECT * FROM books LEFT JOIN authors_to_books ON books.id = authors_to_books.book_id"

    def test_joined_column_reference(self, ctx) -> None:
        sql, _ = (
            Book.query(ctx)
            .join("authors-books", "id", "book_id")
            .where("authors_to_books.author_id", True, 2)
            .to_sql()
        )
        assert sql.endswith("WHERE (authors_to_books.author_id = ?)")

    def test_table_prefix(self, executor) -> None:
        ctx = Context(executor, schema=SchemaRegistry(prefix="wp_"))
        ctx.register(Author)
        sql, _ = Author.query(ctx).where("id", True, 1).to_sql()
        assert sql == "SELECT wp_authors.* FROM wp_authors WHERE (wp_authors.id = ?)"

    def test_postgres_dialect(self) -> None:
        ctx = Context(PostgresExecutor())
        ctx.register(Author)
        sql, params = Author.query(ctx).where("name", True, "a").where("id", True, [1, 2]).to_sql()
        assert sql.endswith("WHERE (authors.name = $1 AND authors.id IN ($2, $3))")
        assert params == ["a", 1, 2]


class TestBuildErrors:
    """Malformed queries fail before any SQL runs."""

    def test_unknown_column(self, ctx, executor) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).where("nickname", True, "x")
        assert executor.statements == []

    def test_unknown_table_reference(self, ctx) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).where("books.title", True, "x")

    def test_unknown_order_column(self, ctx) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).order_by("nickname")

    def test_bad_direction(self, ctx) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).order_by("name", "sideways")

    def test_negative_take(self, ctx) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).take(-1)

    def test_nested_not_callable(self, ctx) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).where("name", True, "x", nested="bio")  # type: ignore[arg-type]

    def test_unknown_relation(self, ctx) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).with_("publishers")

    def test_results_without_model(self, ctx) -> None:
        query = QueryBuilder(ctx, ctx.schema.get_table("authors-books"))
        with pytest.raises(BuildError):
            query.results()

    def test_each_page_size(self, ctx, executor) -> None:
        with pytest.raises(BuildError):
            Author.query(ctx).each(0, print)
        with pytest.raises(BuildError):
            list(Author.query(ctx).iterate(-2))
        assert executor.statements == []


class TestQueryExecution:
    """Test queries against SQLite."""

    def test_like_prefix(self, ctx) -> None:
        john = Author.create(ctx, name="John Smith")
        Author.create(ctx, name="Jane Smith")

        results = Author.query(ctx).where("name", "LIKE", "John%").results()

        assert results.keys() == [john.get_pk()]
        assert results.first().name == "John Smith"

    def test_each_visits_matching_rows_once(self, ctx) -> None:
        for name in ["Ann Smith", "Bob Smith", "Cat Jones", "Dan Smith", "Eve Brown", "Fay Smith"]:
            Author.create(ctx, name=name)

        seen = []
        Author.query(ctx).where("name", "LIKE", "%Smith").order_by("id").each(2, lambda a: seen.append(a.name))

        assert seen == ["Ann Smith", "Bob Smith", "Dan Smith", "Fay Smith"]

    @pytest.mark.parametrize("page_size", [1, 3, 4, 10])
    def test_each_independent_of_batch_size(self, ctx, page_size) -> None:
        for i in range(4):
            Author.create(ctx, name=f"Writer {i} Smith")
        Author.create(ctx, name="Someone Else")

        ids = [a.get_pk() for a in Author.query(ctx).where("name", "LIKE", "%Smith").iterate(page_size)]

        assert sorted(ids) == sorted(set(ids))
        assert len(ids) == 4

    def test_order_take_one(self, ctx) -> None:
        Author.create(ctx, name="Older", birth_date=date(1970, 5, 1))
        Author.create(ctx, name="Younger", birth_date=date(1990, 5, 1))

        results = Author.query(ctx).order_by("birth_date", "DESC").take(1).results()

        assert len(results) == 1
        assert results.first().name == "Younger"
        assert results.first().birth_date == date(1990, 5, 1)

    def test_in_and_null(self, ctx) -> None:
        a = Author.create(ctx, name="A", bio="x")
        b = Author.create(ctx, name="B")
        Author.create(ctx, name="C")

        assert Author.query(ctx).where("id", True, [a.id, b.id]).results().keys() == [a.id, b.id]
        assert [r.name for r in Author.query(ctx).where("bio", True, None).results()] == ["B", "C"]
        assert Author.query(ctx).where("id", "IN", []).results().count() == 0

    def test_boolean_semantics(self, ctx) -> None:
        Author.create(ctx, name="A", bio="poet", active=True)
        Author.create(ctx, name="B", bio="poet", active=False)
        Author.create(ctx, name="C", bio="novelist", active=True)

        query = Author.query(ctx).where("active", True, 1).and_where(
            "bio", True, "poet", lambda q: q.or_where("name", True, "C")
        )

        assert sorted(r.name for r in query.results()) == ["A", "C"]

    def test_first_and_exists(self, ctx) -> None:
        assert Author.query(ctx).first() is None
        assert Author.query(ctx).exists() is False

        Author.create(ctx, name="Solo")

        assert Author.query(ctx).first().name == "Solo"
        assert Author.query(ctx).where("name", True, "Solo").exists() is True

    def test_first_without_model_returns_row(self, ctx) -> None:
        ctx.execute("INSERT INTO authors_to_books (author_id, book_id) VALUES (?, ?)", [1, 2])

        row = QueryBuilder(ctx, ctx.schema.get_table("authors-books")).where("author_id", True, 1).first()

        assert row == {"author_id": 1, "book_id": 2}

    def test_results_in_query_order(self, ctx) -> None:
        for name in ["b", "c", "a"]:
            Author.create(ctx, name=name)

        names = [r.name for r in Author.query(ctx).order_by("name", "DESC").results()]

        assert names == ["c", "b", "a"]
