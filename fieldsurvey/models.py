"""Storage schema.

Tables and columns keep the Portuguese snake_case names of the relational
schema; `fieldsurvey.mapper` translates rows into the domain objects of
`fieldsurvey.domain`.
"""
import uuid

from sqlalchemy import Index

from .extensions import db
from .utils.time import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Administrador(db.Model):
    __tablename__ = 'administradores'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nome = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    telefone = db.Column(db.String(40))
    data_nascimento = db.Column(db.Date)
    url_foto = db.Column(db.String(500))
    esta_ativo = db.Column(db.Boolean, default=True, nullable=False)
    senha_hash = db.Column(db.String(255))


class Empresa(db.Model):
    __tablename__ = 'empresas'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nome = db.Column(db.String(200), nullable=False)
    url_logo = db.Column(db.String(500))
    cnpj = db.Column(db.String(20))
    email_contato = db.Column(db.String(200), unique=True)
    telefone_contato = db.Column(db.String(40))
    pessoa_contato = db.Column(db.String(200))
    instagram = db.Column(db.String(120))
    data_criacao = db.Column(db.DateTime, default=utcnow, nullable=False)
    esta_ativa = db.Column(db.Boolean, default=True, nullable=False)
    senha_hash = db.Column(db.String(255))


class Pesquisador(db.Model):
    __tablename__ = 'pesquisadores'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nome = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True)
    telefone = db.Column(db.String(40))
    genero = db.Column(db.String(20))
    data_nascimento = db.Column(db.Date)
    url_foto = db.Column(db.String(500))
    esta_ativo = db.Column(db.Boolean, default=True, nullable=False)
    cor = db.Column(db.String(16))
    senha_hash = db.Column(db.String(255))


class Voucher(db.Model):
    __tablename__ = 'vouchers'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_empresa = db.Column(db.String(36), db.ForeignKey('empresas.id'), nullable=False, index=True)
    titulo = db.Column(db.String(200), nullable=False)
    descricao = db.Column(db.Text)
    valor_qrcode = db.Column(db.String(200), nullable=False)
    esta_ativo = db.Column(db.Boolean, default=True, nullable=False)
    url_logo = db.Column(db.String(500))
    quantidade_total = db.Column(db.Integer, default=0, nullable=False)
    quantidade_usada = db.Column(db.Integer, default=0, nullable=False)

    __table_args__ = (
        db.CheckConstraint('quantidade_usada <= quantidade_total', name='ck_vouchers_usada_total'),
    )


class Campanha(db.Model):
    __tablename__ = 'campanhas'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nome = db.Column(db.String(200), nullable=False)
    descricao = db.Column(db.Text)
    tema = db.Column(db.String(120), nullable=False)
    texto_lgpd = db.Column(db.Text)
    esta_ativa = db.Column(db.Boolean, default=False, nullable=False)
    coletar_info_usuario = db.Column(db.Boolean, default=False, nullable=False)
    meta_respostas = db.Column(db.Integer, default=100, nullable=False)
    data_inicio = db.Column(db.Date)
    data_fim = db.Column(db.Date)
    hora_inicio = db.Column(db.Time)
    hora_fim = db.Column(db.Time)
    url_redirecionamento_final = db.Column(db.String(500))
    # optimistic concurrency: bumped on every save
    versao = db.Column(db.Integer, default=1, nullable=False)


class Pergunta(db.Model):
    __tablename__ = 'perguntas'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_campanha = db.Column(db.String(36), db.ForeignKey('campanhas.id'), nullable=False, index=True)
    texto = db.Column(db.Text, nullable=False)
    tipo = db.Column(db.String(30), nullable=False)
    ordem = db.Column(db.Integer, nullable=False, default=0)


class OpcaoPergunta(db.Model):
    __tablename__ = 'opcoes_perguntas'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_pergunta = db.Column(db.String(36), db.ForeignKey('perguntas.id'), nullable=False, index=True)
    valor = db.Column(db.String(300), nullable=False)
    pular_para_pergunta = db.Column(db.String(36), db.ForeignKey('perguntas.id'))
    pular_para_final = db.Column(db.Boolean, default=False, nullable=False)
    ordem = db.Column(db.Integer, nullable=False, default=0)


class CampanhaEmpresa(db.Model):
    __tablename__ = 'campanhas_empresas'
    id_campanha = db.Column(db.String(36), db.ForeignKey('campanhas.id'), primary_key=True)
    id_empresa = db.Column(db.String(36), db.ForeignKey('empresas.id'), primary_key=True)


class CampanhaPesquisador(db.Model):
    __tablename__ = 'campanhas_pesquisadores'
    id_campanha = db.Column(db.String(36), db.ForeignKey('campanhas.id'), primary_key=True)
    id_pesquisador = db.Column(db.String(36), db.ForeignKey('pesquisadores.id'), primary_key=True)


class RespostaPesquisa(db.Model):
    __tablename__ = 'respostas_pesquisas'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_campanha = db.Column(db.String(36), db.ForeignKey('campanhas.id'), nullable=False, index=True)
    id_pesquisador = db.Column(db.String(36), db.ForeignKey('pesquisadores.id'), index=True)
    nome_usuario = db.Column(db.String(200))
    telefone_usuario = db.Column(db.String(40))
    idade_usuario = db.Column(db.Integer)
    data_envio = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)


class Resposta(db.Model):
    __tablename__ = 'respostas'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_resposta_pesquisa = db.Column(db.String(36), db.ForeignKey('respostas_pesquisas.id'), nullable=False, index=True)
    # deferred: a campaign save deletes and re-inserts its questions with the same ids
    id_pergunta = db.Column(
        db.String(36),
        db.ForeignKey('perguntas.id', deferrable=True, initially='DEFERRED'),
        nullable=False,
    )
    valor = db.Column(db.Text)


class PesquisadorLocalizacao(db.Model):
    __tablename__ = 'pesquisador_localizacao'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_pesquisador = db.Column(db.String(36), db.ForeignKey('pesquisadores.id'), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)


Index('ix_localizacao_pesquisador_ts', PesquisadorLocalizacao.id_pesquisador, PesquisadorLocalizacao.timestamp)
Index('ix_respostas_campanha_data', RespostaPesquisa.id_campanha, RespostaPesquisa.data_envio)


class RascunhoEditor(db.Model):
    """Server-side campaign editor drafts, one per open editor session."""

    __tablename__ = 'rascunhos_editor'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    id_administrador = db.Column(db.String(36), db.ForeignKey('administradores.id'), nullable=False, index=True)
    estado = db.Column(db.JSON, nullable=False, default=dict)
    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
