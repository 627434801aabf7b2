"""Content store: posts, their likes/dislikes/comments, and the listing queries."""
from datetime import datetime
from forum_db import get_db, dict_from_row
from forum_errors import NotFound

ALL_CATEGORIES = 'All'

POST_QUERY = """
    SELECT p.id, p.title, p.link, p.category, p.content, p.user_id,
           u.username, p.timestamp, p.image_content_type
    FROM posts p
    LEFT JOIN users u ON p.user_id = u.id
"""

TOGGLE_TABLES = ('likes', 'dislikes')

# Stays well under SQLITE_MAX_VARIABLE_NUMBER on older builds.
ID_CHUNK_SIZE = 500


def _title_filter(search):
    # casefold() is registered on the connection by get_db
    return "instr(casefold(p.title), casefold(?)) > 0", search


def _rows_by_post(conn, query, post_ids):
    """Run `query` (with an `{ids}` placeholder list) for all post ids at once."""
    grouped = {post_id: [] for post_id in post_ids}
    for start in range(0, len(post_ids), ID_CHUNK_SIZE):
        chunk = post_ids[start:start + ID_CHUNK_SIZE]
        placeholders = ", ".join("?" * len(chunk))
        for row in conn.execute(query.format(ids=placeholders), chunk):
            grouped[row['post_id']].append(row)
    return grouped


def _load_interactions(conn, posts):
    if not posts:
        return posts

    post_ids = [post['id'] for post in posts]
    likes = _rows_by_post(conn, "SELECT post_id, user_id FROM likes "
                                "WHERE post_id IN ({ids}) ORDER BY id", post_ids)
    dislikes = _rows_by_post(conn, "SELECT post_id, user_id FROM dislikes "
                                   "WHERE post_id IN ({ids}) ORDER BY id", post_ids)
    comments = _rows_by_post(conn, """
        SELECT c.post_id, c.text, c.user_id, u.username
        FROM comments c
        LEFT JOIN users u ON c.user_id = u.id
        WHERE c.post_id IN ({ids})
        ORDER BY c.id
    """, post_ids)

    for post in posts:
        post['likes'] = [row['user_id'] for row in likes[post['id']]]
        post['dislikes'] = [row['user_id'] for row in dislikes[post['id']]]
        post['comments'] = [
            {'text': row['text'], 'user_id': row['user_id'], 'username': row['username']}
            for row in comments[post['id']]
        ]
        post['has_image'] = post.pop('image_content_type') is not None
    return posts


def _fetch_posts(where_clauses=(), params=(), order_by="p.id"):
    conn = get_db()
    query = POST_QUERY
    if where_clauses:
        query += " WHERE " + " AND ".join(where_clauses)
    query += f" ORDER BY {order_by}"
    return _load_interactions(conn, [dict_from_row(row) for row in conn.execute(query, params)])


def get_post(post_id):
    posts = _fetch_posts(["p.id = ?"], [post_id])
    if not posts:
        raise NotFound('Post not found')
    return posts[0]


def create_post(title, link, category, user_id, content=None, image=None,
                image_content_type=None, timestamp=None):
    """Persist a new post owned by `user_id` and return it.

    `image` is stored verbatim with its declared content type; no size or
    type checks are made here.
    """
    timestamp = timestamp or datetime.now()
    conn = get_db()
    with conn:
        cursor = conn.execute("""
            INSERT INTO posts (title, link, category, content, user_id, timestamp,
                               image, image_content_type)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            title,
            link,
            category,
            content,
            user_id,
            timestamp.isoformat(sep=' ', timespec='microseconds'),
            image,
            image_content_type if image is not None else None
        ))
    return get_post(cursor.lastrowid)


def list_posts(search=None, category=None):
    """Matching posts, newest first, grouped by category.

    Title matching is a case-insensitive substring test; the category must
    match exactly unless it is the "All" sentinel. Category keys keep the
    order in which their newest post appears.
    """
    where_clauses = []
    params = []
    if search:
        clause, param = _title_filter(search)
        where_clauses.append(clause)
        params.append(param)
    if category and category != ALL_CATEGORIES:
        where_clauses.append("p.category = ?")
        params.append(category)

    categorized = {}
    for post in _fetch_posts(where_clauses, params, order_by="p.timestamp DESC, p.id DESC"):
        categorized.setdefault(post['category'], []).append(post)
    return categorized


def search_posts(search):
    """Posts whose title contains `search`, ungrouped, in insertion order."""
    if not search:
        return _fetch_posts()
    clause, param = _title_filter(search)
    return _fetch_posts([clause], [param])


def list_user_posts(user_id):
    return _fetch_posts(["p.user_id = ?"], [user_id], order_by="p.timestamp DESC, p.id DESC")


def list_categories():
    cursor = get_db().execute("SELECT DISTINCT category FROM posts ORDER BY category")
    return [row['category'] for row in cursor.fetchall()]


def _toggle(table, post_id, user_id):
    if table not in TOGGLE_TABLES:
        raise ValueError(f"cannot toggle {table}")

    conn = get_db()
    with conn:
        if not conn.execute("SELECT id FROM posts WHERE id = ?", (post_id,)).fetchone():
            raise NotFound('Post not found')
        # Delete and conditional insert share one write transaction, so a
        # concurrent toggle cannot interleave between them.
        removed = conn.execute(
            f"DELETE FROM {table} WHERE post_id = ? AND user_id = ?", (post_id, user_id)
        ).rowcount
        if not removed:
            conn.execute(
                f"INSERT OR IGNORE INTO {table} (post_id, user_id) VALUES (?, ?)",
                (post_id, user_id)
            )
    return get_post(post_id)


def toggle_like(post_id, user_id):
    """Like the post, or remove the like if the user already gave one."""
    return _toggle('likes', post_id, user_id)


def toggle_dislike(post_id, user_id):
    """Dislike the post, or remove the dislike. Likes are left alone."""
    return _toggle('dislikes', post_id, user_id)


def add_comment(post_id, user_id, text):
    conn = get_db()
    with conn:
        if not conn.execute("SELECT id FROM posts WHERE id = ?", (post_id,)).fetchone():
            raise NotFound('Post not found')
        conn.execute(
            "INSERT INTO comments (post_id, user_id, text) VALUES (?, ?, ?)",
            (post_id, user_id, text)
        )
    return get_post(post_id)


def get_image(post_id):
    """Return (bytes, content_type) for the post's image."""
    row = get_db().execute(
        "SELECT image, image_content_type FROM posts WHERE id = ?", (post_id,)
    ).fetchone()
    if not row or row['image'] is None:
        raise NotFound('Image not found')
    return row['image'], row['image_content_type']


def time_ago(timestamp, now=None):
    """Render a post timestamp relative to `now`, e.g. "3 hour(s) ago"."""
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    now = now or datetime.now()
    seconds = int((now - timestamp).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} day(s) ago"
    if hours > 0:
        return f"{hours} hour(s) ago"
    if minutes > 0:
        return f"{minutes} minute(s) ago"
    return 'Just now'
