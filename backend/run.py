import os
from app import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Socket.IO server so lobby rooms get live state_update hints in dev
    socketio.run(app, port=int(os.environ.get('PORT', '5000')), debug=os.environ.get('FLASK_DEBUG', '1') == '1')
