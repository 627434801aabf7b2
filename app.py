import os
import io
import sqlite3
from dotenv import load_dotenv
from flask import Flask, render_template, request, redirect, url_for, flash, send_file, session
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from accounts import register, authenticate, update_profile, get_user, get_user_by_username, get_avatar
from forum_db import close_db, init_database
from forum_errors import DuplicateEmail, InvalidCredentials, NotFound, AuthRequired, InternalError
from posts import (ALL_CATEGORIES, list_posts, search_posts, list_user_posts, list_categories,
                   create_post, toggle_like, toggle_dislike, add_comment, get_image, time_ago)
from session_store import SessionStore, get_session_store
from user import User

load_dotenv()

app = Flask(__name__)

# Configuration
app.secret_key = os.getenv("SESSION_SECRET") or os.getenv("SECRET_KEY")
app.config['DATABASE'] = os.environ.get('DATABASE_PATH', 'linkboard.db')
app.config['PORT'] = int(os.environ.get('PORT', 8080))
if os.environ.get('MAX_CONTENT_LENGTH'):
    app.config['MAX_CONTENT_LENGTH'] = int(os.environ['MAX_CONTENT_LENGTH'])

app.extensions['session_store'] = SessionStore()
app.teardown_appcontext(close_db)
app.add_template_filter(time_ago)

# Flask-Login setup
login_manager = LoginManager()
login_manager.init_app(app)
login_manager.login_view = 'login'

@login_manager.user_loader
def load_user(token):
    snapshot = get_session_store().get(token)
    if snapshot:
        return User.from_snapshot(snapshot)
    return None

@login_manager.unauthorized_handler
def unauthorized():
    raise AuthRequired(request.path)


# Error handling
@app.errorhandler(AuthRequired)
def handle_auth_required(e):
    app.logger.info(f"Anonymous access to {e} redirected to login")
    return redirect(url_for('login'))

@app.errorhandler(NotFound)
def handle_not_found(e):
    return str(e), 404

@app.errorhandler(InternalError)
@app.errorhandler(sqlite3.Error)
def handle_internal_error(e):
    app.logger.exception(f"Unhandled store failure on {request.path}")
    return 'Internal server error', 500


def uploaded_file(field):
    """Return (bytes, mimetype) for a multipart file field, or (None, None)."""
    upload = request.files.get(field)
    if not upload or not upload.filename:
        return None, None
    return upload.read(), upload.mimetype


# Routes
@app.route('/about-us')
def about_us():
    return render_template('about_us.html')

@app.route('/contact-us')
def contact_us():
    return render_template('contact_us.html')

@app.route('/privacy-policy')
def privacy_policy():
    return render_template('privacy_policy.html')

@app.route('/login', methods=['GET', 'POST'])
def login():
    app.logger.info("Login route accessed")
    if current_user.is_authenticated:
        return redirect(url_for('index'))

    if request.method == 'POST':
        email = request.form.get('email')
        password = request.form.get('password')

        try:
            user = authenticate(email, password)
        except InvalidCredentials as e:
            flash(str(e), 'error')
            return render_template('login_register.html')

        session_store = get_session_store()
        token = session_store.create(user)
        login_user(User.from_snapshot(session_store.get(token)))
        app.logger.info(f"User {user['id']} logged in")
        return redirect(url_for('index'))

    return render_template('login_register.html')

@app.route('/logout')
def logout():
    # flask-login keeps the token under "_user_id"; taking it out first means
    # logout_user() never has to load the user from the store.
    token = session.pop('_user_id', None)
    logout_user()
    if token:
        get_session_store().destroy(token)
    flash('You have been logged out', 'success')
    return redirect(url_for('login'))

@app.route('/register', methods=['GET', 'POST'])
@app.route('/sign', methods=['GET', 'POST'])
def register_user():
    if current_user.is_authenticated:
        return redirect(url_for('index'))

    if request.method == 'POST':
        username = request.form.get('username', '').strip()
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')

        if not (username and email and password):
            flash('Username, email and password are required', 'error')
            return render_template('login_register.html')

        try:
            user = register(username, email, password, bio=request.form.get('bio', ''))
        except DuplicateEmail as e:
            flash(str(e), 'error')
            return render_template('login_register.html')

        app.logger.info(f"User {user['id']} registered")
        flash('Registration successful! Please log in.', 'success')
        return redirect(url_for('index'))

    return render_template('login_register.html')

@app.route('/')
def index():
    search = request.args.get('search', '')
    category = request.args.get('category') or ALL_CATEGORIES

    posts = list_posts(search=search, category=category)
    return render_template('dashboard.html',
                           posts=posts,
                           categories=list_categories(),
                           search=search,
                           selected_category=category)

@app.route('/search')
def search():
    search_text = request.args.get('search', '')
    results = search_posts(search_text)
    return render_template('search_results.html', results=results, search=search_text)

@app.route('/profile/<username>')
def public_profile(username):
    profile_user = get_user_by_username(username)
    return render_template('profile.html',
                           profile_user=profile_user,
                           posts=list_user_posts(profile_user['id']),
                           own_profile=False)

@app.route('/profile')
@login_required
def profile():
    profile_user = get_user(current_user.id)
    return render_template('profile.html',
                           profile_user=profile_user,
                           posts=list_user_posts(profile_user['id']),
                           own_profile=True)

@app.route('/update-profile', methods=['POST'])
@login_required
def update_user_profile():
    avatar, avatar_content_type = uploaded_file('avatar')
    update_profile(current_user.id,
                   bio=request.form.get('bio'),
                   avatar=avatar,
                   avatar_content_type=avatar_content_type)
    app.logger.info(f"Profile updated for user {current_user.id}")
    flash('Profile updated successfully!', 'success')
    return redirect(url_for('profile'))

@app.route('/create-post', methods=['POST'])
@app.route('/post-link', methods=['POST'])
@app.route('/post-description', methods=['POST'])
@login_required
def new_post():
    title = request.form.get('title', '').strip()
    category = request.form.get('category', '').strip()
    if not (title and category):
        flash('Title and category are required', 'error')
        return redirect(url_for('index'))

    image, image_content_type = uploaded_file('image')
    post = create_post(title,
                       request.form.get('link') or None,
                       category,
                       current_user.id,
                       content=request.form.get('content') or None,
                       image=image,
                       image_content_type=image_content_type)
    app.logger.info(f"Post {post['id']} created by user {current_user.id}")
    return redirect(url_for('index'))

@app.route('/like-post/<int:post_id>', methods=['POST'])
@login_required
def like_post(post_id):
    toggle_like(post_id, current_user.id)
    return redirect(url_for('index'))

@app.route('/dislike-post/<int:post_id>', methods=['POST'])
@login_required
def dislike_post(post_id):
    toggle_dislike(post_id, current_user.id)
    return redirect(url_for('index'))

@app.route('/comment/<int:post_id>', methods=['POST'])
@login_required
def comment_post(post_id):
    add_comment(post_id, current_user.id, request.form.get('text', ''))
    return redirect(url_for('index'))

@app.route('/post-image/<int:post_id>')
def post_image(post_id):
    data, content_type = get_image(post_id)
    return send_file(io.BytesIO(data), mimetype=content_type or 'application/octet-stream')

@app.route('/avatar/<int:user_id>')
def user_avatar(user_id):
    data, content_type = get_avatar(user_id)
    return send_file(io.BytesIO(data), mimetype=content_type or 'application/octet-stream')

if __name__ == '__main__':
    init_database(app.config['DATABASE'])
    app.logger.info(f"Server is running on port {app.config['PORT']}")
    app.run(port=app.config['PORT'], debug=True)
