from bingo import db
from datetime import datetime, timezone
import json

from bingo.services.games.cards import new_marking, cells_with


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class NumberGame(db.Model):
    """A Number Bingo session: 5x5 cards, numbers 1-75."""
    __tablename__ = 'number_game'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.String(32), unique=True, index=True)
    game_type = db.Column(db.String(32), default='numberBingo', nullable=False)
    max_players = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(16), default='preparing', nullable=False, index=True)  # preparing, ready, active, paused, completed
    winning_pattern = db.Column(db.String(16), default='any-line', nullable=False)
    auto_call_interval = db.Column(db.Integer, default=3000, nullable=False)  # ms between calls
    marking_mode = db.Column(db.String(8), default='auto', nullable=False)  # auto, manual
    game_cost = db.Column(db.Float, default=2, nullable=False)
    profit_percentage = db.Column(db.Float, default=10, nullable=False)
    player_entry_fee = db.Column(db.Float, default=10, nullable=False)
    created_by = db.Column(db.String(64), nullable=False)
    current_number = db.Column(db.Integer, nullable=True)
    available_cards_json = db.Column(db.Text, nullable=True)  # JSON-encoded list of card numbers
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False)

    players = db.relationship('NumberGamePlayer', order_by='NumberGamePlayer.id', cascade='all, delete-orphan', back_populates='game')
    cards = db.relationship('BingoCard', order_by='BingoCard.id', cascade='all, delete-orphan', back_populates='game')
    called_numbers = db.relationship('CalledNumber', order_by='CalledNumber.id', cascade='all, delete-orphan', back_populates='game')
    winners = db.relationship('BingoWinner', order_by='BingoWinner.id', cascade='all, delete-orphan', back_populates='game')

    __mapper_args__ = {'version_id_col': version}

    @property
    def player_ids(self):
        return [p.player_id for p in self.players]

    def has_player(self, player_id):
        return any(p.player_id == player_id for p in self.players)

    @property
    def available_cards(self):
        return json.loads(self.available_cards_json) if self.available_cards_json else []

    @available_cards.setter
    def available_cards(self, numbers):
        self.available_cards_json = json.dumps(sorted(numbers))

    @property
    def called_values(self):
        return [c.number for c in self.called_numbers]

    @property
    def winner_ids(self):
        return [w.player_id for w in self.winners]

    def card_for(self, player_id):
        return next((c for c in self.cards if c.player_id == player_id), None)

    def card_by_number(self, card_number):
        return next((c for c in self.cards if c.card_number == card_number), None)

    def touch(self):
        self.updated_at = utcnow()

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'game_type': self.game_type,
            'status': self.status,
            'max_players': self.max_players,
            'current_players': len(self.players),
            'winning_pattern': self.winning_pattern,
            'auto_call_interval': self.auto_call_interval,
            'marking_mode': self.marking_mode,
            'game_cost': self.game_cost,
            'profit_percentage': self.profit_percentage,
            'player_entry_fee': self.player_entry_fee,
            'created_by': self.created_by,
            'called_numbers_count': len(self.called_numbers),
            'has_winner': bool(self.winners),
            'created_at': _iso(self.created_at),
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
        }

    def to_player_view(self, player_id):
        """Public state plus the requesting player's own card only."""
        card = self.card_for(player_id)
        payload = self.to_dict()
        payload.update({
            'players': self.player_ids,
            'cards_selected': len(self.cards),
            'available_cards': self.available_cards,
            'my_card': card.to_dict() if card else None,
            'called_numbers': self.called_values,
            'current_number': self.current_number,
            'winners': [w.to_dict(include_snapshot=False) for w in self.winners],
        })
        return payload


class NumberGamePlayer(db.Model):
    __tablename__ = 'number_game_player'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('number_game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False, index=True)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('NumberGame', back_populates='players')

    __table_args__ = (db.UniqueConstraint('game_pk', 'player_id', name='uq_number_game_player'),)


class BingoCard(db.Model):
    """Card number -> player assignment, unique both ways within a game."""
    __tablename__ = 'bingo_card'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('number_game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    card_number = db.Column(db.Integer, nullable=False)
    grid_json = db.Column(db.Text, nullable=False)  # JSON 5x5, column-major
    marked_json = db.Column(db.Text, nullable=False)  # JSON 5x5 booleans, column-major
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('NumberGame', back_populates='cards')

    __table_args__ = (
        db.UniqueConstraint('game_pk', 'card_number', name='uq_bingo_card_number'),
        db.UniqueConstraint('game_pk', 'player_id', name='uq_bingo_card_player'),
    )

    def __init__(self, **kwargs):
        grid = kwargs.pop('grid', None)
        super(BingoCard, self).__init__(**kwargs)
        if grid is not None:
            self.grid = grid
            self.marked = new_marking()

    @property
    def grid(self):
        return json.loads(self.grid_json)

    @grid.setter
    def grid(self, value):
        self.grid_json = json.dumps(value)

    @property
    def marked(self):
        return json.loads(self.marked_json)

    @marked.setter
    def marked(self, value):
        self.marked_json = json.dumps(value)

    def mark(self, number):
        """Mark every cell holding ``number``; returns how many cells matched."""
        positions = cells_with(self.grid, number)
        if positions:
            marked = self.marked
            for col, row in positions:
                marked[col][row] = True
            self.marked = marked
        return len(positions)

    def to_dict(self):
        return {
            'card_number': self.card_number,
            'grid': self.grid,
            'marked': self.marked,
        }


class CalledNumber(db.Model):
    __tablename__ = 'called_number'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('number_game.id'), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    called_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('NumberGame', back_populates='called_numbers')

    __table_args__ = (db.UniqueConstraint('game_pk', 'number', name='uq_called_number'),)

    def to_dict(self):
        return {'number': self.number, 'called_at': _iso(self.called_at)}


class BingoWinner(db.Model):
    __tablename__ = 'bingo_winner'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('number_game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    card_number = db.Column(db.Integer, nullable=False)
    pattern = db.Column(db.String(16), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    winning_card_json = db.Column(db.Text, nullable=False)
    marked_cells_json = db.Column(db.Text, nullable=False)
    game = db.relationship('NumberGame', back_populates='winners')

    __table_args__ = (db.UniqueConstraint('game_pk', 'player_id', name='uq_bingo_winner'),)

    def to_dict(self, include_snapshot=True):
        payload = {
            'player_id': self.player_id,
            'card_number': self.card_number,
            'pattern': self.pattern,
            'completed_at': _iso(self.completed_at),
        }
        if include_snapshot:
            payload['winning_card'] = json.loads(self.winning_card_json)
            payload['marked_cells'] = json.loads(self.marked_cells_json)
        return payload


class LetterGame(db.Model):
    """A Letter Bingo session: each player picks a word, letters A-Z are drawn."""
    __tablename__ = 'letter_game'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.String(32), unique=True, index=True)
    game_type = db.Column(db.String(32), default='letterBingo', nullable=False)
    max_players = db.Column(db.Integer, nullable=False)
    word_length = db.Column(db.Integer, nullable=False, default=5)
    status = db.Column(db.String(16), default='preparing', nullable=False, index=True)  # preparing, ready, playing, completed
    draw_speed = db.Column(db.Integer, default=3000, nullable=False)  # ms between draws
    created_by = db.Column(db.String(64), nullable=False)
    remaining_letters = db.Column(db.String(26), default='', nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False)

    players = db.relationship('LetterGamePlayer', order_by='LetterGamePlayer.id', cascade='all, delete-orphan', back_populates='game')
    words = db.relationship('PlayerWord', order_by='PlayerWord.id', cascade='all, delete-orphan', back_populates='game')
    drawn_letters = db.relationship('DrawnLetter', order_by='DrawnLetter.id', cascade='all, delete-orphan', back_populates='game')
    winners = db.relationship('LetterWinner', order_by='LetterWinner.id', cascade='all, delete-orphan', back_populates='game')

    __mapper_args__ = {'version_id_col': version}

    @property
    def player_ids(self):
        return [p.player_id for p in self.players]

    def has_player(self, player_id):
        return any(p.player_id == player_id for p in self.players)

    @property
    def drawn_values(self):
        return [d.letter for d in self.drawn_letters]

    @property
    def winner_ids(self):
        return [w.player_id for w in self.winners]

    def word_for(self, player_id):
        return next((w for w in self.words if w.player_id == player_id), None)

    def is_word_available(self, word, player_id):
        return not any(w.word == word.upper() and w.player_id != player_id for w in self.words)

    def touch(self):
        self.updated_at = utcnow()

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'game_type': self.game_type,
            'status': self.status,
            'max_players': self.max_players,
            'current_players': len(self.players),
            'word_length': self.word_length,
            'draw_speed': self.draw_speed,
            'created_by': self.created_by,
            'words_submitted': len(self.words),
            'drawn_letters_count': len(self.drawn_letters),
            'has_winner': bool(self.winners),
            'created_at': _iso(self.created_at),
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
        }

    def to_player_view(self, player_id):
        """Public state plus the requesting player's own word only."""
        mine = self.word_for(player_id)
        payload = self.to_dict()
        payload.update({
            'players': self.player_ids,
            'my_word': mine.word if mine else None,
            'matched_letters': mine.matched if mine else [],
            'is_winner': mine.is_winner if mine else False,
            'drawn_letters': self.drawn_values,
            'remaining_letters_count': len(self.remaining_letters),
            # Other players' progress without revealing their words
            'all_player_words': [
                {
                    'player_id': w.player_id,
                    'word_length': len(w.word),
                    'matched_count': len(w.matched),
                    'is_winner': w.is_winner,
                }
                for w in self.words
            ],
            'winners': [w.to_dict() for w in self.winners],
        })
        return payload


class LetterGamePlayer(db.Model):
    __tablename__ = 'letter_game_player'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('letter_game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False, index=True)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('LetterGame', back_populates='players')

    __table_args__ = (db.UniqueConstraint('game_pk', 'player_id', name='uq_letter_game_player'),)


class PlayerWord(db.Model):
    __tablename__ = 'player_word'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('letter_game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    word = db.Column(db.String(16), nullable=False)
    matched_letters = db.Column(db.String(26), default='', nullable=False)  # in match order
    is_winner = db.Column(db.Boolean, default=False, nullable=False)
    submitted_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('LetterGame', back_populates='words')

    __table_args__ = (
        db.UniqueConstraint('game_pk', 'word', name='uq_player_word_word'),
        db.UniqueConstraint('game_pk', 'player_id', name='uq_player_word_player'),
    )

    @property
    def matched(self):
        return list(self.matched_letters or '')

    def match(self, letter):
        """Record ``letter`` if it is in the word; True when the word is complete."""
        if letter in self.word and letter not in (self.matched_letters or ''):
            self.matched_letters = (self.matched_letters or '') + letter
        return all(ch in self.matched_letters for ch in self.word)


class DrawnLetter(db.Model):
    __tablename__ = 'drawn_letter'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('letter_game.id'), nullable=False, index=True)
    letter = db.Column(db.String(1), nullable=False)
    drawn_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('LetterGame', back_populates='drawn_letters')

    __table_args__ = (db.UniqueConstraint('game_pk', 'letter', name='uq_drawn_letter'),)


class LetterWinner(db.Model):
    __tablename__ = 'letter_winner'
    id = db.Column(db.Integer, primary_key=True)
    game_pk = db.Column(db.Integer, db.ForeignKey('letter_game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    word = db.Column(db.String(16), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    game = db.relationship('LetterGame', back_populates='winners')

    __table_args__ = (db.UniqueConstraint('game_pk', 'player_id', name='uq_letter_winner'),)

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'word': self.word,
            'completed_at': _iso(self.completed_at),
        }
