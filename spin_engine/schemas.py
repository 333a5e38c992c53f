from marshmallow import Schema, fields, validate, ValidationError, post_load, validates, validates_schema, EXCLUDE
from marshmallow.validate import OneOf, Range, Length

from spin_engine.models import GameConfiguration, GameTheme, Symbol, SpinSession
from spin_engine.utils.bet_ladder import MIN_BET, MAX_BET, VIP_MULTIPLIER
from spin_engine.utils.symbol_tables import SYMBOL_VALUES


SYMBOL_NAMES = [symbol.value for symbol in Symbol]


class LayoutSchema(Schema):
    rows = fields.Int(required=True, validate=Range(min=3, max=5, error="Rows must be between 3 and 5."))
    columns = fields.Int(required=True, validate=Range(min=3, max=5, error="Columns must be between 3 and 5."))


class GameConfigSchema(Schema):
    """Validates the `game` object of a gameConfig.json file and builds a GameConfiguration."""

    class Meta:
        unknown = EXCLUDE

    id = fields.Str(required=True, validate=[Length(min=1, max=64), validate.Regexp(r'^[a-z0-9-]+$', error="Game id may only contain lowercase letters, digits and dashes.")])
    name = fields.Str(required=True, validate=Length(min=1, max=100))
    theme = fields.Str(required=True, validate=OneOf([theme.value for theme in GameTheme]))
    description = fields.Str(load_default='')
    layout = fields.Nested(LayoutSchema, required=True)
    scatters_to_trigger = fields.Int(required=True, validate=Range(min=1, max=5))
    symbol_values = fields.Dict(keys=fields.Str(validate=OneOf(SYMBOL_NAMES)), values=fields.Float(validate=Range(min=0)), load_default=dict)

    @validates_schema
    def validate_scatter_threshold(self, data, **kwargs):
        layout = data.get('layout')
        threshold = data.get('scatters_to_trigger')
        # At most one scatter lands per reel, so the threshold must be reachable.
        if layout and threshold and threshold > layout['columns']:
            raise ValidationError('scatters_to_trigger cannot exceed the number of reels.', 'scatters_to_trigger')

    @post_load
    def make_game_configuration(self, data, **kwargs):
        symbol_values = dict(SYMBOL_VALUES)
        symbol_values.update({Symbol(name): value for name, value in data['symbol_values'].items()})
        return GameConfiguration(
            id=data['id'],
            name=data['name'],
            theme=GameTheme(data['theme']),
            reels=data['layout']['columns'],
            rows=data['layout']['rows'],
            scatters_to_trigger=data['scatters_to_trigger'],
            description=data['description'],
            symbol_values=symbol_values,
        )


class PaylineSchema(Schema):
    id = fields.Int()
    indices = fields.List(fields.Int())
    color = fields.Str()


class LineWinSchema(Schema):
    payline_id = fields.Int()
    symbol = fields.Method('get_symbol')
    count = fields.Int()
    payout = fields.Int()
    cells = fields.List(fields.List(fields.Int()))

    def get_symbol(self, obj):
        return obj.symbol.value


class WinResultSchema(Schema):
    payout = fields.Int()
    winning_lines = fields.List(fields.Int())
    winning_cells = fields.List(fields.List(fields.Int()))
    scatters_found = fields.Int()
    win_tier = fields.Str(allow_none=True)
    is_big_win = fields.Bool()
    line_wins = fields.List(fields.Nested(LineWinSchema))


class SpinSessionSchema(Schema):
    """Round-trips a SpinSession so per-game state survives a game switch or restart."""
    game_id = fields.Str(required=True)
    bet_amount = fields.Int(required=True, validate=Range(min=0))
    free_spins_remaining = fields.Int(load_default=0, validate=Range(min=0))
    total_free_spins = fields.Int(load_default=0, validate=Range(min=0))
    free_spins_won = fields.Int(load_default=0, validate=Range(min=0))
    free_spin_total_win = fields.Int(load_default=0, validate=Range(min=0))
    spins_without_bonus = fields.Int(load_default=0, validate=Range(min=0))
    grid = fields.Method('dump_grid', deserialize='load_grid', allow_none=True, load_default=None)

    def dump_grid(self, obj):
        if obj.grid is None:
            return None
        return [[symbol.value for symbol in column] for column in obj.grid]

    def load_grid(self, value):
        if value is None:
            return None
        try:
            return tuple(tuple(Symbol(name) for name in column) for column in value)
        except (TypeError, ValueError):
            raise ValidationError('Grid must be a list of columns of symbol names.')

    @post_load
    def make_session(self, data, **kwargs):
        return SpinSession(**data)


class SpinRequestSchema(Schema):
    bet_amount = fields.Int(
        required=True,
        validate=Range(min=MIN_BET, max=MAX_BET * VIP_MULTIPLIER, error="Bet amount is outside the bet ladder")
    )
    high_limit = fields.Bool(load_default=False)

    @validates('bet_amount')
    def validate_bet_step(self, value, **kwargs):
        # Every ladder step is a multiple of 1,000.
        if value % 1000 != 0:
            raise ValidationError('Bet amount must be a multiple of 1,000.')
