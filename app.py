"""Flask web application for the MindBridge peer-support API."""

import logging
import os
from functools import wraps

import requests
from flask import Flask, g, jsonify, redirect, request, session, Response

from mindbridge.services import (
    ChatService,
    CompanionService,
    MindfulnessService,
    PeerQuery,
    PeerService,
    ProfileService,
    ServiceError,
    SupabaseStore,
    StoreError,
    SupportRequestService,
)
from mindbridge.services.supabase_store import AuthError
from config import LOG_LEVEL, SECRET_KEY

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SECRET_KEY'] = SECRET_KEY
# Called as factory(access_token=...) to get a store scoped to the caller
app.config['STORE_FACTORY'] = SupabaseStore

GOOGLE_DRIVE_DOWNLOAD_URL = 'https://docs.google.com/uc'
PROFILE_SETUP_URL = '/onboarding/profile-setup?sync=true'


def get_store():
    """Store bound to the current caller's token (anonymous outside a request)."""
    factory = app.config['STORE_FACTORY']
    return factory(access_token=g.get('access_token'))


def _bearer_token():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


def login_required(f):
    """Decorator to require a valid Supabase session for API endpoints."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = session.get('access_token') or _bearer_token()
        if not token:
            return jsonify({'error': 'Authentication required'}), 401
        try:
            user = app.config['STORE_FACTORY'](access_token=token).get_user(token)
        except StoreError as e:
            logger.info("Rejected session: %s", e)
            return jsonify({'error': 'Authentication required'}), 401
        g.user_id = user['id']
        g.user_email = user.get('email')
        g.access_token = token
        return f(*args, **kwargs)
    return decorated_function


def _json_body():
    """Parsed JSON object body, or {} for a missing or non-object body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _start_session(auth):
    """Keep the GoTrue session in the cookie and make sure a profile exists."""
    user = auth.get('user') or {}
    access_token = auth.get('access_token')
    if not access_token or not user.get('id'):
        return None
    session['access_token'] = access_token
    session['refresh_token'] = auth.get('refresh_token')
    session.permanent = True
    g.access_token = access_token
    ProfileService(get_store()).ensure_exists(user['id'])
    return {'id': user['id'], 'email': user.get('email')}


# ----------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------

@app.route('/api/auth/signup', methods=['POST'])
def signup():
    """Create an account with email and password."""
    data = _json_body()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    try:
        auth = get_store().sign_up(email, password)
        # Projects with email confirmation return a user but no session yet
        user = _start_session(auth)
        if user is None:
            pending = auth.get('user') or auth
            return jsonify({
                'success': True,
                'user': {'id': pending.get('id'), 'email': pending.get('email', email)},
                'confirmationRequired': True,
            })
        return jsonify({'success': True, 'user': user})
    except StoreError as e:
        # GoTrue answers 4xx for weak passwords and taken emails
        return jsonify({'error': str(e)}), 400 if e.status and e.status < 500 else 500
    except Exception as e:
        logger.exception("Sign-up failed")
        return jsonify({'error': str(e)}), 500


@app.route('/api/auth/login', methods=['POST'])
def login():
    """Sign in with email and password."""
    data = _json_body()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    try:
        user = _start_session(get_store().sign_in(email, password))
        if user is None:
            return jsonify({'error': 'Invalid login credentials'}), 401
        return jsonify({'success': True, 'user': user})
    except AuthError as e:
        return jsonify({'error': str(e)}), 401
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/auth/logout', methods=['POST'])
def logout():
    """End the session."""
    token = session.get('access_token')
    if token:
        try:
            app.config['STORE_FACTORY'](access_token=token).sign_out(token)
        except StoreError as e:
            logger.warning("Sign-out call failed: %s", e)
    session.clear()
    return jsonify({'success': True})


@app.route('/auth/callback')
def auth_callback():
    """Finish an OAuth or magic-link sign-in, then continue to profile setup."""
    code = request.args.get('code')
    if code:
        try:
            auth = get_store().exchange_code(code, request.args.get('code_verifier'))
            _start_session(auth)
        except StoreError as e:
            logger.error("Auth callback failed: %s", e)
    return redirect(PROFILE_SETUP_URL)


# ----------------------------------------------------------------------
# Profile
# ----------------------------------------------------------------------

@app.route('/api/profile', methods=['GET'])
@login_required
def get_profile():
    try:
        return jsonify(ProfileService(get_store()).get(g.user_id))
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/profile', methods=['POST'])
@login_required
def save_profile():
    try:
        return jsonify(ProfileService(get_store()).save(g.user_id, request.get_json(silent=True)))
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


# ----------------------------------------------------------------------
# AI companion
# ----------------------------------------------------------------------

@app.route('/api/chat', methods=['POST'])
def companion_chat():
    """Reply to the latest message in an AI companion conversation."""
    data = _json_body()
    try:
        reply = CompanionService().reply(data.get('messages'))
        return jsonify(reply.to_dict())
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except Exception as e:
        logger.exception("Companion reply failed")
        return jsonify({'error': str(e)}), 500


# ----------------------------------------------------------------------
# Mindfulness
# ----------------------------------------------------------------------

@app.route('/api/mindfulness', methods=['GET'])
@login_required
def list_mindfulness():
    """List entries, or fetch one with ?id=."""
    service = MindfulnessService(get_store())
    try:
        entry_id = request.args.get('id')
        if entry_id:
            return jsonify(service.get_entry(g.user_id, entry_id))
        return jsonify(service.list_entries(g.user_id, request.args.get('type')))
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/mindfulness', methods=['POST'])
@login_required
def create_mindfulness():
    try:
        entry = MindfulnessService(get_store()).create_entry(g.user_id, request.get_json(silent=True))
        return jsonify(entry), 201
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/mindfulness', methods=['PUT'])
@login_required
def update_mindfulness():
    try:
        return jsonify(MindfulnessService(get_store()).update_entry(g.user_id, _json_body()))
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/mindfulness', methods=['DELETE'])
@login_required
def delete_mindfulness():
    try:
        MindfulnessService(get_store()).delete_entry(g.user_id, request.args.get('id'))
        return jsonify({'success': True})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/mindfulness/streak', methods=['POST'])
@login_required
def mindfulness_streak():
    data = _json_body()
    try:
        return jsonify(MindfulnessService(get_store()).record_activity(g.user_id, data.get('activityType')))
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/mindfulness/migrate', methods=['POST'])
@login_required
def migrate_mindfulness():
    """Import entries the client kept locally before signing in."""
    try:
        counts = MindfulnessService(get_store()).import_entries(g.user_id, _json_body())
        return jsonify({'success': True, 'message': 'Migration complete', 'imported': counts})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


# ----------------------------------------------------------------------
# Peer support
# ----------------------------------------------------------------------

@app.route('/api/peer-support', methods=['GET'])
@login_required
def list_peers():
    """Candidate peers, scored against the caller, filtered and sorted."""
    try:
        store = get_store()
        ProfileService(store).touch(g.user_id)
        peers = PeerService(store).list_peers(g.user_id, PeerQuery.from_args(request.args))
        return jsonify({'peers': peers})
    except Exception as e:
        logger.exception("Listing peers failed")
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/requests', methods=['GET'])
@login_required
def list_support_requests():
    try:
        found = SupportRequestService(get_store()).list_requests(
            g.user_id,
            direction=request.args.get('type') or 'all',
            status=request.args.get('status'),
        )
        return jsonify({'requests': found})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/requests', methods=['POST'])
@login_required
def create_support_request():
    data = _json_body()
    try:
        created = SupportRequestService(get_store()).create(
            g.user_id,
            data.get('receiver_id'),
            data.get('message'),
            is_anonymous=bool(data.get('is_anonymous', False)),
        )
        return jsonify({'message': 'Support request sent successfully', 'request': created})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/requests', methods=['PATCH'])
@login_required
def respond_support_request():
    data = _json_body()
    try:
        updated = SupportRequestService(get_store()).respond(g.user_id, data.get('id'), data.get('status'))
        return jsonify({'message': f"Support request {updated['status']}", 'request': updated})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/requests', methods=['DELETE'])
@app.route('/api/peer-support/requests/<request_id>', methods=['DELETE'])
@login_required
def cancel_support_request(request_id=None):
    try:
        cancelled = SupportRequestService(get_store()).cancel(g.user_id, request_id or request.args.get('id'))
        return jsonify({'message': 'Support request cancelled successfully', 'request': cancelled})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/chats', methods=['GET'])
@login_required
def get_peer_chat():
    try:
        return jsonify(ChatService(get_store()).get_thread(g.user_id, request.args.get('peer_id')))
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/chats', methods=['POST'])
@login_required
def send_peer_chat():
    data = _json_body()
    store = get_store()
    try:
        chat = ChatService(store).send(
            g.user_id,
            data.get('receiver_id'),
            data.get('message'),
            is_anonymous=bool(data.get('is_anonymous', False)),
        )
        ProfileService(store).touch(g.user_id)
        return jsonify({'message': 'Message sent successfully', 'chat': chat})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


@app.route('/api/peer-support/chats', methods=['DELETE'])
@login_required
def delete_peer_chat():
    try:
        ChatService(get_store()).delete_thread(g.user_id, request.args.get('peer_id'))
        return jsonify({'message': 'Chat deleted successfully'})
    except ServiceError as e:
        return jsonify({'error': str(e)}), e.status
    except StoreError as e:
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Unhandled error in %s", request.path)
        return jsonify({'error': str(e)}), 500


# ----------------------------------------------------------------------
# Media proxy
# ----------------------------------------------------------------------

@app.route('/api/proxy/google-drive', methods=['GET'])
def proxy_google_drive():
    """Stream a meditation audio file from Google Drive."""
    file_id = request.args.get('fileId')
    if not file_id:
        return jsonify({'error': 'File ID is required'}), 400

    try:
        upstream = requests.get(
            GOOGLE_DRIVE_DOWNLOAD_URL,
            params={'export': 'download', 'id': file_id},
            timeout=30,
        )
        upstream.raise_for_status()
    except requests.RequestException as e:
        logger.error("Error proxying Google Drive file %s: %s", file_id, e)
        return jsonify({'error': 'Failed to proxy file'}), 500

    return Response(
        upstream.content,
        headers={
            'Content-Type': upstream.headers.get('Content-Type', 'audio/mpeg'),
            'Access-Control-Allow-Origin': '*',
            'Cache-Control': 'public, max-age=31536000',
        },
    )


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(debug=False, host='0.0.0.0', port=port)
